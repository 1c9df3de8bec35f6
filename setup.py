from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="portal-e2e",
    version="1.0.0",
    description="End-to-end test harness for the business portal: tagged test data, database verification and cleanup",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["portal_e2e", "portal_e2e.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Framework :: Pytest",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "aiosqlite>=0.19",
        ],
    },
    entry_points={
        "console_scripts": [
            "portal-e2e-cleanup=portal_e2e.cleanup_cli:main",
        ],
    },
)
