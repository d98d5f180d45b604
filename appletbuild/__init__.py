"""appletbuild - cosmic-applets-niri 构建/打包编排工具"""

__version__ = "0.1.0"
