"""
Kafka Metrics Reporter
Setup configuration for package installation.
"""

from setuptools import setup, find_packages
import os

# Read the README for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "Kafka Metrics Reporter: publish metric registry snapshots to Kafka"

setup(
    name="kafka-metrics-reporter",
    version="1.0.0",
    author="Kafka Metrics Reporter Team",
    description="Scheduled reporter that publishes JSON metric snapshots to a Kafka topic",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Monitoring",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Typing :: Typed",
    ],
    python_requires=">=3.9,<3.14",
    install_requires=[
        "numpy>=1.21.0",
        "PyYAML>=6.0",
        "aiokafka>=0.10.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=0.950",
            "flake8>=4.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "kafka-metrics-reporter=kafka_reporter.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "kafka_reporter": ["py.typed", "config/default_config.yaml"],
    },
    zip_safe=False,
    keywords=[
        "metrics",
        "kafka",
        "monitoring",
        "reporter",
        "telemetry",
    ],
)
