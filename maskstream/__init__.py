"""
maskstream
~~~~~~~~~~

Mask Stream：浏览器一对多直播的信令中继服务与无头客户端。
"""
__version__ = "0.1.0"
