from setuptools import setup, find_packages

setup(
    name="keystone_graph",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "matplotlib",
        "numba"
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    description="Keystone edge similarities over CSR graphs for overlapping community detection",
    python_requires=">=3.8",
)
