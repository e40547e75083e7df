"""核心领域层：制品坐标、仓库策略、下载缓存、隔离作用域、资源读取"""
