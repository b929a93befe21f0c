"""
ElasticPool 项目构建配置
"""

from setuptools import setup, find_packages
import os

# 读取 README 文件
def read_readme():
    with open("README.md", "r", encoding="utf-8") as fh:
        return fh.read()

# 读取依赖文件
def read_requirements():
    requirements = []
    if os.path.exists("requirements.txt"):
        with open("requirements.txt", "r", encoding="utf-8") as fh:
            requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]
    return requirements

# 读取开发依赖
def read_dev_requirements():
    dev_requirements = []
    if os.path.exists("requirements-dev.txt"):
        with open("requirements-dev.txt", "r", encoding="utf-8") as fh:
            dev_requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]
    return dev_requirements

setup(
    name="elasticpool-core",
    version="0.1.0",
    author="Arsenal Team",
    description="Autoscaling-group backed node pool reconciler - ElasticPool",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*")),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Clustering",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.8",
    install_requires=read_requirements(),
    extras_require={
        "dev": read_dev_requirements(),
    },
    include_package_data=True,
    package_data={
        "elasticpool": [
            "config/*.yaml",
        ],
    },
    zip_safe=False,
    keywords=[
        "distributed-computing",
        "autoscaling",
        "ray",
        "cluster-api",
        "reconciler",
        "cluster",
        "resource-management",
    ],
)
