from setuptools import setup, find_packages

setup(
    name="openvision-reco",
    version="1.0.0",
    description="Image target recognition engine: feature extraction, matching and geometric verification",
    author="OpenVision",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "opencv-python>=4.8.0,<5",
        "numpy>=1.24.0",
        "scipy>=1.10.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "reco=reco.cli:main",
        ],
    },
    python_requires=">=3.9",
)
