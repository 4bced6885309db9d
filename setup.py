from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Threshold Sweep - transcode a dataset across contrast thresholds and log VMAF quality"

setup(
    name="threshold-sweep",
    version="1.0.0",
    description="Batch evaluation harness for contrast-threshold transcoding sweeps with VMAF scoring",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video :: Conversion",
    ],
    python_requires=">=3.9",
    install_requires=[
        "tqdm>=4.0.0",
        "psutil>=5.0.0",  # For scratch free-space checks
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "flake8",
        ],
    },
    entry_points={
        "console_scripts": [
            "threshold-sweep=threshold_sweep.cli:main_sweep",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
