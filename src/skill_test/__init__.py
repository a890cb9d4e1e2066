"""skill-test — Agent Skill 测试运行器"""

__version__ = "0.1.0"
