#!/usr/bin/env python

if __name__ == '__main__':
    import io
    import os

    import setuptools

    here = os.path.abspath(os.path.dirname(__file__))
    with io.open(os.path.join(here, 'README.rst'), encoding='utf-8') as stream:
        long_description = stream.read()

    setuptools.setup(
        name='sparsehex',
        version='0.1.0',
        description='Sparse byte blocks and Intel HEX files',
        long_description=long_description,
        long_description_content_type='text/x-rst',
        license='BSD 2-Clause License',
        author='Andrea Zoppi',
        classifiers=[
            'Development Status :: 4 - Beta',
            'Intended Audience :: Developers',
            'License :: OSI Approved :: BSD License',
            'Operating System :: OS Independent',
            'Programming Language :: Python :: 3',
            'Topic :: Software Development :: Embedded Systems',
        ],
        keywords=['sparse', 'blocks', 'memory', 'intel', 'hex', 'ihex', 'firmware'],
        package_dir={'': 'src'},
        packages=setuptools.find_packages('src'),
        python_requires='>=3.7',
        install_requires=[
            'bytesparse>=0.0.6',
        ],
        extras_require={
            'testing': [
                'numpy',
                'pytest',
            ],
        },
        zip_safe=False,
    )
