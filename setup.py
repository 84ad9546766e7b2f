from setuptools import find_packages, setup

setup(
    name="rdopt",
    version="0.1.0",
    description="Reaching definitions with constant and copy propagation over a three-address IR",
    python_requires=">=3.11",
    install_requires=["graphviz", "result"],
    extras_require={"test": ["pytest", "pytest-timeout"]},
    packages=find_packages(include=["rdopt", "rdopt.*"]),
    entry_points={"console_scripts": ["rdopt = rdopt.compiler:main"]},
)
