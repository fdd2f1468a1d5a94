from setuptools import setup, find_packages

setup(
    name="agent-trust-gateway",
    version="0.1.0",
    description="x402-paid trust evaluation gateway for ERC-8004 agents (REST + A2A JSON-RPC)",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.5",
        "httpx>=0.27",
        "web3>=7.0",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.23", "respx>=0.21"]},
    entry_points={"console_scripts": ["trust-gateway=trust_gateway.cli:main"]},
    python_requires=">=3.10",
    license="CC0-1.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Framework :: FastAPI",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication",
        "Programming Language :: Python :: 3",
    ],
    keywords="agent trust reputation erc-8004 x402 a2a",
)
