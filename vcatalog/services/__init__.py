"""服务层：目录版本加载编排与服务容器"""
