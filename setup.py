from setuptools import setup, find_packages

setup(
    name="shadowpay",
    version="0.1.0",
    description="ShadowPay: private payments with instant authorization and deferred ZK settlement",
    author="ShadowPay Team",
    author_email="team@shadowpay.dev",
    url="https://github.com/shadowpay/shadowpay-python",
    license="MIT",
    python_requires=">=3.11",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"shadowpay.utils": ["poseidon_constants.json"]},
    install_requires=[
        "cryptography>=40.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.0",
        "python-dotenv>=1.0.0",
        "py_ecc>=6.0.0",
        "poseidon-hash>=0.1.0",
        "requests>=2.28.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "hypothesis>=6.0.0",
        ],
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
