"""
setup.py for package "cmi_knn"
Pure Python implementation - no compilation required.
"""
from setuptools import setup, find_packages

setup(
    name='cmi_knn',
    version='0.1.0',
    description="Conditional mutual information with k-NN (KSG) estimators, multithreaded (pure Python)",
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.20',
        'scipy>=1.7',
    ],
    extras_require={
        'dev': ['pytest'],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: BSD License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Information Analysis',
    ],
)
