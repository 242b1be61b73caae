from setuptools import setup, find_packages

setup(
    name="kube-simulator",
    version="0.1.0",
    description="Tick-based simulator for Kubernetes autoscaling and deployment strategies",
    author="adamfilli",
    packages=find_packages(include=["kubesim", "kubesim.*"]),
    install_requires=[
        "matplotlib",
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "kubesim=kubesim.cli:main",
        ],
    },
    include_package_data=True,
    python_requires=">=3.11",
)
