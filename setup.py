from setuptools import setup, find_packages

install_requires = [
    "colorama>=0.4.6",
    "PyYAML>=6.0.1",
    "jsonschema>=4.19.0",
    "tomli>=2.0.1; python_version < '3.11'",
]

# Development dependencies
extras_require = {
    'dev': [
        'pytest>=7.4.0',
        'pytest-cov>=4.1.0',
        'black>=23.7.0',
        'isort>=5.12.0',
        'mypy>=1.4.1',
        'flake8>=6.1.0',
    ]
}

setup(
    name="workspace-overlay",
    version="1.0.0",
    description="Workspace profiles layered over a shared application configuration",
    packages=find_packages(include=["workspace_overlay", "workspace_overlay.*"]),
    python_requires='>=3.9',
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "workspace-overlay=workspace_overlay.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3.9",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
)
