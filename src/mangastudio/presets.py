from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    prompt: str


REFERENCE_STYLE = "reference"
DEFAULT_STYLE = "kodomomuke"
DEFAULT_GENRE = "action"

REFERENCE_STYLE_PROMPT = (
    "Use the last uploaded image as a style reference. Replicate its artistic style, color palette, "
    "line work, and overall mood for the manga generation. The style is more important than the "
    "content of the reference image."
)

MANGA_STYLES: Dict[str, Preset] = {
    "kodomomuke": Preset(
        name="Kodomomuke",
        description="For young children, simple stories",
        prompt=(
            "Kodomomuke manga style, aimed at young children. Features simple, clear line work, large "
            "expressive characters, and a bright, wholesome atmosphere. The story should be easy to "
            "understand and often teaches a moral lesson."
        ),
    ),
    "shonen": Preset(
        name="Shonen",
        description="For boys, action focused",
        prompt=(
            "Classic Shonen manga style, with dynamic action lines, bold characters, and high-contrast "
            "shading suitable for adventure and fight scenes. Emphasizes friendship, perseverance, and growth."
        ),
    ),
    "shojo": Preset(
        name="Shojo",
        description="For girls, romance focused",
        prompt=(
            "Elegant Shojo manga style, with detailed expressive eyes, flowing hair, floral or sparkling "
            "motifs, and a strong focus on emotions, romance, and relationships."
        ),
    ),
    "seinen": Preset(
        name="Seinen",
        description="For young men, complex stories",
        prompt=(
            "Mature Seinen manga style, featuring realistic details, intricate backgrounds, complex "
            "characters, and a gritty, cinematic atmosphere. Themes can be psychological, philosophical, "
            "or contain mature content."
        ),
    ),
    "josei": Preset(
        name="Josei",
        description="For young women, realistic stories",
        prompt=(
            "Sophisticated Josei manga style, targeting adult women. Features a more realistic and subtle "
            "art style, focusing on everyday life, mature relationships, and relatable adult experiences. "
            "Can include historical or biographical elements."
        ),
    ),
}

MANGA_GENRES: Dict[str, Preset] = {
    "action": Preset(
        name="Action / Adventure",
        description="Fights and journeys",
        prompt="The story should be an action/adventure, focusing on combat, journeys, or grand adventures.",
    ),
    "romance": Preset(
        name="Romance",
        description="Love and relationships",
        prompt="The story should be a romance, focusing on love and relationships.",
    ),
    "fantasy": Preset(
        name="Fantasy",
        description="Magic and the supernatural",
        prompt="The story should be a fantasy, set in a world with magic and supernatural elements.",
    ),
    "horror": Preset(
        name="Horror",
        description="Frightening and chilling",
        prompt="The story should be a horror, designed to be frightening or chilling.",
    ),
    "scifi": Preset(
        name="Sci-Fi",
        description="The future and innovation",
        prompt="The story should be sci-fi, focusing on the future, technological innovations, or science.",
    ),
    "sports": Preset(
        name="Sports",
        description="Competition and training",
        prompt="The story should be about sports, focusing on competition or training.",
    ),
    "comedy": Preset(
        name="Comedy",
        description="Humor and fun",
        prompt="The story should be a comedy, focusing on humor and fun.",
    ),
    "mystery": Preset(
        name="Mystery / Detective",
        description="Puzzles and investigation",
        prompt="The story should be a mystery/detective story, focusing on puzzles and investigation.",
    ),
}


def is_known_style(style: str) -> bool:
    return style == REFERENCE_STYLE or style in MANGA_STYLES


def is_known_genre(genre: str) -> bool:
    return genre in MANGA_GENRES
