from setuptools import find_packages, setup

setup(
    name='pybiotoolbox',
    version='0.1.0',
    description='Genomic interval scoring over feature databases and signal files',
    install_requires=['pandas', 'numpy', 'pyyaml'],
    extras_require={
        'bigwig': ['pyBigWig'],
        'progress': ['tqdm'],
        'test': ['pytest', 'pyBigWig'],
    },
    packages=find_packages(include=['pybiotoolbox', 'pybiotoolbox.*']),
    python_requires='>=3.10',
    zip_safe=False
)
