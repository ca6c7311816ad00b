# src/habithub/quotes.py
from datetime import date

QUOTES = [
    ("The happiness of your life depends upon the quality of your thoughts.", "Marcus Aurelius"),
    ("Waste no more time arguing about what a good man should be. Be one.", "Marcus Aurelius"),
    ("The impediment to action advances action. What stands in the way becomes the way.",
     "Marcus Aurelius"),
    ("Very little is needed to make a happy life; it is all within yourself, in your way of thinking.",
     "Marcus Aurelius"),
    ("He who has a why to live can bear almost any how.", "Friedrich Nietzsche"),
    ("In the midst of chaos, there is also opportunity.", "Sun Tzu"),
    ("We suffer more often in imagination than in reality.", "Seneca"),
    ("No man is free who is not master of himself.", "Epictetus"),
    ("First say to yourself what you would be; and then do what you have to do.", "Epictetus"),
    ("Luck is what happens when preparation meets opportunity.", "Seneca"),
]


def quote_for_day(day: date) -> dict:
    """Same quote all day, a different one tomorrow."""
    text, author = QUOTES[day.toordinal() % len(QUOTES)]
    return {"text": text, "author": author}
