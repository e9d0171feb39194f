from setuptools import find_namespace_packages, setup

# Installation en mode développement :
#   pip install -e .[test]
#   python -m facturation --reload

setup(
    name='FacturationAtelier',
    version='1.0',
    description="Backend de facturation pour atelier de réparation automobile",
    packages=find_namespace_packages(include=['facturation', 'facturation.*']),
    python_requires='>=3.10',
    install_requires=[
        'fastapi>=0.110',
        'uvicorn>=0.29',
        'pydantic>=2.5',
        'PyJWT>=2.8',
        'bcrypt>=4.1',
    ],
    extras_require={
        'test': [
            'pytest>=8.0',
            'httpx>=0.27',
        ],
    },
    entry_points={
        'console_scripts': ['facturation-api=facturation.__main__:main'],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
)
