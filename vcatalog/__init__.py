"""vcatalog - 多版本运行时组件目录的制品解析与隔离资源加载"""

__version__ = "0.3.0"
