from setuptools import setup, find_packages

setup(
    name="onboarding-assessments",
    version="1.0.0",
    description="Onboarding test attempts, autosave, scoring and evaluation",
    packages=find_packages(),
    package_data={
        "onboarding": [
            "alembic/env.py",
            "alembic/script.py.mako",
            "alembic/versions/*.py",
        ],
    },
    install_requires=[
        "fastapi>=0.95.0,<0.100.0",
        "uvicorn>=0.15.0",
        "pydantic>=1.8.0,<2.0.0",
        "sqlalchemy[asyncio]>=1.4.0,<2.0.0",
        "aiosqlite>=0.17.0",
        "alembic>=1.7.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.23.0,<0.28.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "onboarding-init-db=onboarding.scripts.init_db:main",
            "onboarding-expire-attempts=onboarding.scripts.expire_attempts:main",
        ],
    },
    python_requires=">=3.8",
)
