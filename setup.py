from setuptools import setup, find_packages

setup(
    name='sdflisp',
    version='0.1.0',
    author='nassimberrada',
    author_email='your.email@example.com',
    description='A small Lisp for signed distance field scenes, compiled to WGSL shaders.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    url='https://github.com/yourusername/sdflisp',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    package_data={
        'sdflisp': ['wgsl/*.wgsl'],
    },
    install_requires=[
        'numpy',
        'watchdog',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'sdflisp=sdflisp.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: Multimedia :: Graphics :: 3D Modeling',
        'Topic :: Software Development :: Compilers',
    ],
    python_requires='>=3.8',
)
