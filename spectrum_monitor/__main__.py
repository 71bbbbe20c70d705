"""
Spectrum Monitor 主程序入口

使用方式:
    python -m spectrum_monitor
    或
    spectrum-monitor
"""

from spectrum_monitor.main import cli

if __name__ == "__main__":
    cli()
