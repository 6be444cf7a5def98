__title__ = "sfinstaller"
__description__ = "Install the Service Fabric SDK and Visual Studio tooling on Windows build agents"
__url__ = "https://github.com/sfinstaller/sfinstaller"
__version__ = "1.0.0"
__license__ = "GPLv3"
__intro__ = r"""
  ___  ___  _            _        _ _
 / __|| __|(_)_ _  ___| |_ __ _| | |___ _ _
 \__ \| _| | | ' \(_-<|  _/ _` | | / -_) '_|
 |___/|_|  |_|_||_/__/ \__\__,_|_|_\___|_|
"""
