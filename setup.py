from setuptools import setup, find_packages

setup(
    name='ogbridge',
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    license='MIT',
    description='HTTP bridge for OurGroceries shopping lists with meal plan suggestions',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=[
        'requests>=2.28.1',
        'flask>=2.2.0',
        'anthropic>=0.40.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'ogbridge=ogbridge.__main__:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
)
