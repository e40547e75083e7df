"""通用工具：日志、YAML/原子写入、网络"""
