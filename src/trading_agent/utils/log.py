"""日志工具"""

import re
import sys

from logbook import Logger, StreamHandler, lookup_level
from colorama import init, Fore, Back, Style

# 初始化colorama以支持跨平台彩色输出
init()

_TIME_PATTERN = re.compile(r'(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}(?:\.\d+)?|\d{2}:\d{2}:\d{2})')

# 已推入应用栈的处理器，避免重复输出
_application_handler = None


class ColoredStreamHandler(StreamHandler):
    """支持彩色输出的StreamHandler"""

    # 日志级别颜色映射
    LEVEL_COLORS = {
        'TRACE': Fore.CYAN,
        'DEBUG': Fore.BLUE,
        'INFO': Fore.GREEN,
        'NOTICE': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    # 模块前缀颜色映射
    MODULE_COLORS = {
        'STRATEGY': Fore.MAGENTA,
        'ALERT': Fore.YELLOW,
        'EXECUTION': Fore.CYAN,
        'DATA': Fore.YELLOW,
        'SCHEDULER': Fore.BLUE,
        'MONITOR': Fore.BLUE,
        'ENGINE': Fore.GREEN,
    }

    def format(self, record):
        """格式化日志记录，添加颜色"""
        formatted = super().format(record)

        level_color = self.LEVEL_COLORS.get(record.level_name, '')

        # 从channel中提取模块名 (如 TradingAgent.STRATEGY -> STRATEGY)
        module_color = ''
        channel = getattr(record, 'channel', None)
        if channel:
            parts = channel.split('.')
            if len(parts) > 1:
                module_color = self.MODULE_COLORS.get(parts[-1], Fore.WHITE)

        if level_color:
            colored_level = f"{level_color}{record.level_name}{Style.RESET_ALL}"
            formatted = formatted.replace(record.level_name, colored_level, 1)

        if module_color:
            colored_channel = f"{module_color}{channel}{Style.RESET_ALL}"
            formatted = formatted.replace(channel, colored_channel, 1)

        # 时间灰色显示
        return _TIME_PATTERN.sub(f"{Style.DIM}\\1{Style.RESET_ALL}", formatted)


def setup_logging(level='INFO', module_prefix: str = None, use_colors: bool = True) -> Logger:
    """
    设置日志配置并返回logger实例

    处理器只在第一次调用时推入应用栈，之后的调用只创建新的频道。

    Args:
        level: 日志级别
        module_prefix: 模块前缀
        use_colors: 是否使用彩色输出
    """
    global _application_handler

    if _application_handler is None:
        if use_colors:
            handler = ColoredStreamHandler(sys.stdout, level=level, bubble=True)
        else:
            handler = StreamHandler(sys.stdout, level=level, bubble=True)
        handler.push_application()
        _application_handler = handler

    logger_name = f'TradingAgent.{module_prefix}' if module_prefix else 'TradingAgent'
    return Logger(logger_name)


def set_log_level(level):
    """调整已安装处理器的日志级别"""
    if _application_handler is not None:
        _application_handler.level = lookup_level(level.upper() if isinstance(level, str) else level)
