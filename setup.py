from setuptools import setup, find_packages

setup(
    name="stable-bands",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["models", "calculate_bands"],
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "matplotlib",
        "seaborn",
        "duckdb",
        "tqdm",
        "psutil",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "stable-bands=calculate_bands:main",
        ],
    },
    python_requires=">=3.8",
)
