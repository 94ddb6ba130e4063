"""请求管道中间件"""
