from setuptools import setup, find_packages

setup(
    name='opensearch-deployer',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer[all]>=0.9,<0.16',
        'click>=8.0,<9',
        'kubernetes',
        'python-dotenv',
        'requests',
        'PyYAML',
        'pydantic>=2',
        'jsonschema',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'osdeploy=osdeploy.cli:main'
        ]
    },
    author='Your Name',
    description='Ordered deployment, certificate-safe teardown and health verification of OpenSearch on Kubernetes',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
