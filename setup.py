import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="chart_metadata",
    version="v0.1.0",
    description="Loads and patches metadata of packaged helm charts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    keywords=["helm chart", "metadata", "patch"],
    install_requires=[
        "ConfigArgParse",
        "dependency-injector",
        "PyYAML",
        "semver>=3.0.0",
        "step-exec-lib>=0.4.2,<0.5",
    ],
    extras_require={
        "test": ["pytest", "pytest-mock"],
    },
    entry_points={
        "console_scripts": ["chart-metadata=chart_metadata.__main__:main"],
    },
    classifiers=[
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 4 - Beta",
    ],
    python_requires=">=3.11",
)
