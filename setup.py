import setuptools

setuptools.setup(
    name="meteor-rx",
    description="Meteor-M LRPT pass capture, post-processing and publishing pipeline",
    version="1.0.0",
    author="Matthew Phelps",
    author_email="matthewphelps@odysseyconsult.com",
    packages=setuptools.find_namespace_packages(include=["meteor_rx", "meteor_rx.*"]),
    package_data={"meteor_rx": ["logging/logging_config.json"]},
    python_requires=">=3.10",
    install_requires=[
        "skyfield",
        "numpy",
        "matplotlib",
        "aio-pika",
        "toml",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "meteor-rx=meteor_rx.operators.orchestrator.cli:main",
        ],
    },
)
