from setuptools import setup, find_packages

setup(
    name="pyoptimum",
    version="0.1.0",
    packages=find_packages(exclude=["test", "test.*"]),
    install_requires=["numpy", "scipy", "matplotlib", "pandas"],
    extras_require={"test": ["pytest"]},
    author="Your Name",
    description="Active-set Newton and simplex solvers for bound and equality constrained optimization",
    license="MIT",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License"
    ]
)
