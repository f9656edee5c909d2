from setuptools import setup, find_packages

with open("README.md", "r") as readme_file:
    readme = readme_file.read()

requirements = ["numpy>=1.25", "scipy", "matplotlib"]

setup(
    name="VNSynth",
    version="0.0.1",
    author="Christian Konstantinov",
    author_email="christian.konstantinov98@gmail.com",
    description="Velvet noise generators for late reverb and endless texture synthesis",
    long_description=readme,
    long_description_content_type="text/markdown",
    url="https://github.com/ckonst/VNDecorrelate",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    python_requires=">=3.11",
    classifiers=[
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
