from setuptools import setup, find_packages

setup(
    name="egg-pm",
    version="0.1.0",
    description="Gerenciador de dependências de código-fonte para pacotes Idris2.",
    author="Seu Nome",
    license="GPL-3.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "rich>=13.0.0",
        "PyYAML>=6.0",
        "tomli>=1.1.0; python_version < '3.11'",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "egg=egg.modules.cli:main",
        ],
    },
)
