"""Session progression engine: dice, rounds, chapters, summaries and AI tier routing"""
