from setuptools import setup, find_packages

def read_requirements():
    with open('requirements.txt') as req:
        content = req.read()
        requirements = content.split('\n')
    # Filter out comments and empty lines
    return [req for req in requirements if req and not req.startswith('#')]

setup(
    name='legal_order_lifecycle',
    version='0.1.0',
    packages=find_packages(exclude=["tests*"]),
    py_modules=['worker'],
    include_package_data=True,
    install_requires=read_requirements(),
    extras_require={
        'test': [
            'pytest>=7.4',
            'pytest-asyncio>=0.21',
        ],
    },
    entry_points={
        'console_scripts': [
            'order-lifecycle-worker=worker:run',
        ],
    },
    description='Order lifecycle management for legal filing services, run on Temporal',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Topic :: Office/Business",
    ],
    python_requires='>=3.10',
)
