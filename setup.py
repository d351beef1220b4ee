from setuptools import setup, find_packages


setup(
    name="paranoid-guard",
    version="1.0.0",
    packages=find_packages(include=["paranoid_guard", "paranoid_guard.*"]),
    install_requires=[
        "requests==2.32.3",
        "urllib3>=2.0,<3",
        "PyYAML==6.0.2",
    ],
    author="Paranoid Guard Team",
    description="SSRF protection that validates the resolved address of every outbound HTTP(S) connection",
    python_requires=">=3.10",
)
