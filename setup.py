from setuptools import setup, find_packages

setup(
    name="email-dispatch",
    version="0.1.0",
    description="Email composition and SMTP delivery with validated requests and Jinja2 templates",
    author="",
    author_email="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "Jinja2>=3.0.0",
        "email-validator>=2.0.0",
        "python-dotenv>=0.19.0",
        "click>=8.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "PyYAML>=5.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "email-dispatch=email_dispatch.cli:main",
        ],
    },
)
