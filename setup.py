from setuptools import setup, find_packages

setup(
    name="emdforge",
    version="0.1.0",
    description="Frequency-response sweeps of circular elementary motion detector arrays",
    author="EMDForge Contributors",
    license="MIT",
    packages=find_packages(include=["emdforge", "emdforge.*"]),
    python_requires=">=3.8",
    install_requires=[
        "torch>=1.12.0",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "PyYAML>=6.0",
        "tqdm>=4.60",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "emdforge=emdforge.cli:main",
        ],
    },
)
