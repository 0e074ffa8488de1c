#!/usr/bin/env python
from setuptools import setup

def find_version(path):
    import re
    # path shall be a plain ascii text file.
    s = open(path, 'rt').read()
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]",
                              s, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Version not found")

setup(name="rktk", version=find_version("rktk/version.py"),
      description="Arbitrary precision BFGS search for Runge-Kutta order conditions",
      zip_safe=True, # this should be pure python
      packages=["rktk",
                "rktk.testing",
                "rktk.tests",
               ],
      license='GPLv3',
      python_requires='>=3.8',
      install_requires=['numpy',
                        'gmpy2>=2.2', # mpfr scalars with precision and rounding contexts
                       ],
      extras_require={
          'test' : ['pytest', 'scipy'],
      },
      entry_points={
          'console_scripts' : ['rktk-search = rktk.search:main'],
      },
      )
