from setuptools import setup, find_packages

setup(
    name="cashrecon",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas",
        "numpy",
        "openpyxl",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cashrecon=cashrecon.reconcile:main",
        ],
    },
    author="Price Hatfield",
    description="Reconcile bank statements against general-ledger cash accounts",
    python_requires=">=3.8",
)
