from setuptools import setup


setup(
    name="logicheck",
    version="0.1.0",
    description="Reconciles shipment manifest exports into transfer cycles, pendencies and branch health",
    packages=["logicheck"],
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "all": ["xlrd"],
    },
)
