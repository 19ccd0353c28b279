from setuptools import setup, find_packages

setup(
    name="reminder-service",
    version="0.1.0",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests*", "alembic*"]),
    install_requires=[
        "sqlalchemy",
        "alembic",
        "psycopg2-binary",
        "python-dotenv",
        "pydantic>=2.5",
        "pydantic-settings",
        "celery",
        "kombu",
        "prometheus-client",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
