#!/usr/bin/env python

import os
from setuptools import setup, find_packages

ver_dic = {}
version_file = open("gpuwss/version.py")
try:
    version_file_contents = version_file.read()
finally:
    version_file.close()

os.environ["AKPYTHON_EXEC_IMPORT_UNAVAILABLE"] = "1"
exec(compile(version_file_contents, "gpuwss/version.py", "exec"), ver_dic)


setup(name="gpuwss",
      version=ver_dic["VERSION_TEXT"],
      description="Working-set and execution-count estimation "
          "for GPU kernel memory accesses",
      long_description=open("README.rst").read(),
      classifiers=[
          "Development Status :: 4 - Beta",
          "Intended Audience :: Developers",
          "Intended Audience :: Science/Research",
          "License :: OSI Approved :: MIT License",
          "Natural Language :: English",
          "Programming Language :: Python",
          "Programming Language :: Python :: 3",
          "Topic :: Scientific/Engineering",
          "Topic :: Software Development :: Compilers",
          "Topic :: Software Development :: Libraries",
          "Topic :: Utilities",
          ],

      python_requires="~=3.10",
      install_requires=[
          "pytools>=2023.1.1",
          "pymbolic>=2024.2",
          "numpy>=1.19",
          "immutables",
          "typing_extensions",
          ],

      extras_require={
          "test": [
              "pytest",
              ],
          },

      license="MIT",
      packages=find_packages(include=["gpuwss", "gpuwss.*"]),
      )
