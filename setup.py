from setuptools import setup, find_packages

setup(
    name="wacli",
    version="0.1.0",
    description="Command-line messaging client whose sync process doubles as a local command daemon",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*", "scripts"]),
    install_requires=[
        "typer>=0.12.0",
        "rich>=13.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "tests": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "wacli=wacli.main:wacli",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
