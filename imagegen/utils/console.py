from rich.console import Console

console = Console(color_system='auto', log_path=False, log_time=False)
