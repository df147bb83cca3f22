"""Baseline SQLAlchemy table metadata for a library store.

This is the minimal schema every destination store is brought up to before a
merge. Stores written by older application versions may lack columns; newer
ones may carry extra columns that the merge never touches.
"""

from __future__ import annotations

from typing import Final

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    text,
)

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

SQLITE_NOW: Final = text("CURRENT_TIMESTAMP")


def _id() -> Column[int]:
    return Column("id", Integer, primary_key=True, autoincrement=True)


def _texts(*names: str) -> list[Column[str]]:
    return [Column(name, Text, nullable=True) for name in names]


def _integers(*names: str) -> list[Column[int]]:
    return [Column(name, Integer, nullable=True) for name in names]


def _floats(*names: str) -> list[Column[float]]:
    return [Column(name, Float, nullable=True) for name in names]


def _timestamps() -> list[Column[str]]:
    return [
        Column("created_at", Text, server_default=SQLITE_NOW),
        Column("updated_at", Text, server_default=SQLITE_NOW),
    ]


def _parent(name: str, table: str, *, required: bool = True) -> Column[int]:
    return Column(
        name,
        Integer,
        ForeignKey(f"{table}.id", ondelete="CASCADE" if required else "SET NULL"),
        nullable=not required,
    )


# Users ------------------------------------------------------------------------

users_table = Table(
    "users",
    metadata,
    _id(),
    Column("name", Text, nullable=False, unique=True),
    *_texts("emoji", "color", "avatar_path", "sync_uuid"),
    *_timestamps(),
)

Index(
    "idx_users_sync_uuid",
    users_table.c.sync_uuid,
    unique=True,
    sqlite_where=users_table.c.sync_uuid.is_not(None),
)

# Catalogue --------------------------------------------------------------------

purchase_sites_table = Table(
    "purchase_sites",
    metadata,
    _id(),
    Column("name", Text, nullable=False, unique=True),
    *_texts("url"),
    *_timestamps(),
)

_JP_TITLE_COLUMNS = (
    "titre_alternatif",
    "titre_original",
    "titre_romaji",
    "titre_natif",
    "titre_anglais",
    "titres_alternatifs",
)

manga_series_table = Table(
    "manga_series",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_texts(*_JP_TITLE_COLUMNS),
    *_integers("mal_id", "anilist_id"),
    *_texts(
        "type_volume",
        "type_contenu",
        "couverture_url",
        "description",
        "statut_publication",
        "statut_publication_vf",
        "genres",
        "themes",
        "auteurs",
        "langue_originale",
        "demographie",
        "editeur",
        "editeur_vo",
        "serialization",
        "media_type",
        "rating",
        "background",
        "relations",
        "nautiljon_url",
        "source_donnees",
    ),
    *_integers(
        "annee_publication",
        "annee_vf",
        "nb_volumes",
        "nb_volumes_vf",
        "nb_chapitres",
        "nb_chapitres_vf",
        "rank_mal",
        "popularity_mal",
    ),
    *_floats("score_mal"),
    # Private reading state
    *_texts("statut", "statut_lecture", "date_debut_lecture", "date_fin_lecture", "tags"),
    *_texts("notes_privees"),
    *_floats("score_utilisateur"),
    Column("volumes_lus", Integer, server_default=text("0")),
    Column("chapitres_lus", Integer, server_default=text("0")),
    Column("is_favorite", Integer, server_default=text("0")),
    Column("is_hidden", Integer, server_default=text("0")),
    _parent("user_id_ajout", "users", required=False),
    _parent("mihon_user_id", "users", required=False),
    *_timestamps(),
)

anime_series_table = Table(
    "anime_series",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_texts(*_JP_TITLE_COLUMNS),
    *_integers("mal_id", "anilist_id"),
    *_texts(
        "mal_url",
        "type",
        "source",
        "couverture_url",
        "description",
        "statut_diffusion",
        "date_debut",
        "date_fin",
        "duree",
        "saison_diffusion",
        "genres",
        "themes",
        "demographics",
        "studios",
        "producteurs",
        "diffuseurs",
        "rating",
        "background",
        "franchise_name",
        "source_import",
    ),
    *_integers(
        "nb_episodes",
        "en_cours_diffusion",
        "annee",
        "rank_mal",
        "popularity_mal",
        "franchise_order",
    ),
    *_floats("score"),
    # Private viewing state
    *_texts("statut_visionnage", "notes_privees"),
    *_floats("score_utilisateur"),
    Column("episodes_vus", Integer, server_default=text("0")),
    Column("is_favorite", Integer, server_default=text("0")),
    Column("is_hidden", Integer, server_default=text("0")),
    _parent("user_id_ajout", "users", required=False),
    *_timestamps(),
)

movies_table = Table(
    "movies",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_texts(
        "titre_original",
        "imdb_id",
        "synopsis",
        "date_sortie",
        "genres",
        "poster_path",
        "backdrop_path",
        "statut",
    ),
    Column("tmdb_id", Integer, unique=True),
    *_integers("duree", "nb_votes", "budget", "revenus"),
    *_floats("note_moyenne"),
    *_texts("statut_visionnage", "date_visionnage", "notes_privees"),
    *_floats("score_utilisateur"),
    *_timestamps(),
)

tv_shows_table = Table(
    "tv_shows",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_texts(
        "titre_original",
        "imdb_id",
        "synopsis",
        "statut",
        "type",
        "date_premiere",
        "date_derniere",
        "genres",
        "reseaux",
        "poster_path",
        "backdrop_path",
    ),
    Column("tmdb_id", Integer, unique=True),
    *_integers("nb_saisons", "nb_episodes"),
    *_floats("note_moyenne"),
    *_texts("statut_visionnage", "notes_privees"),
    *_floats("score_utilisateur"),
    *_timestamps(),
)

adulte_game_games_table = Table(
    "adulte_game_games",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_integers("f95_thread_id", "Lewdcorner_thread_id"),
    *_texts(
        "version",
        "statut_jeu",
        "moteur",
        "developpeur",
        "plateforme",
        "couverture_url",
        "tags",
        "lien_f95",
        "lien_traduction",
        "lien_jeu",
        "version_traduite",
        "traducteur",
        "statut_trad_fr",
        "type_trad_fr",
        "version_disponible",
    ),
    Column("maj_disponible", Integer, server_default=text("0")),
    *_texts("statut_perso", "notes_privees", "chemin_executable", "derniere_session"),
    *_texts("version_jouee"),
    *_timestamps(),
)

books_table = Table(
    "books",
    metadata,
    _id(),
    Column("titre", Text, nullable=False),
    *_texts(
        "titre_original",
        "auteur",
        "auteurs",
        "isbn",
        "isbn13",
        "editeur",
        "date_publication",
        "date_publication_originale",
        "langue",
        "langue_originale",
        "type_livre",
        "genres",
        "description",
        "couverture_url",
        "google_books_id",
        "open_library_id",
        "bnf_id",
        "source_donnees",
        "source_url",
        "rating",
        "devise",
    ),
    *_integers("nombre_pages", "nb_votes"),
    *_floats("score", "prix_suggere"),
    *_texts("statut_lecture", "date_lecture", "notes_privees"),
    *_floats("score_utilisateur"),
    *_timestamps(),
)

subscriptions_table = Table(
    "subscriptions",
    metadata,
    _id(),
    Column("name", Text, nullable=False),
    *_texts("type", "devise", "frequency", "start_date", "next_payment_date", "status"),
    *_floats("price"),
    *_texts("notes"),
    *_timestamps(),
)

# Sub-entities -----------------------------------------------------------------

manga_tomes_table = Table(
    "manga_tomes",
    metadata,
    _id(),
    _parent("serie_id", "manga_series"),
    Column("numero", Integer, nullable=False),
    *_floats("prix"),
    *_texts("date_sortie", "date_achat", "couverture_url", "type_tome"),
    *_timestamps(),
    UniqueConstraint("serie_id", "numero"),
)

tv_seasons_table = Table(
    "tv_seasons",
    metadata,
    _id(),
    _parent("show_id", "tv_shows"),
    Column("numero", Integer, nullable=False),
    *_integers("tmdb_id", "nb_episodes"),
    *_texts("titre", "synopsis", "date_premiere", "poster_path"),
    *_timestamps(),
    UniqueConstraint("show_id", "numero"),
)

tv_episodes_table = Table(
    "tv_episodes",
    metadata,
    _id(),
    _parent("show_id", "tv_shows"),
    _parent("season_id", "tv_seasons", required=False),
    Column("saison_numero", Integer, nullable=False),
    Column("episode_numero", Integer, nullable=False),
    *_integers("tmdb_id", "duree"),
    *_texts("titre", "synopsis", "date_diffusion", "still_path"),
    Column("vu", Integer, server_default=text("0")),
    *_texts("date_visionnage"),
    *_timestamps(),
    UniqueConstraint("show_id", "saison_numero", "episode_numero"),
)

one_time_purchases_table = Table(
    "one_time_purchases",
    metadata,
    _id(),
    _parent("site_id", "purchase_sites", required=False),
    *_texts("site_name", "purchase_date", "devise", "notes"),
    *_floats("amount"),
    *_integers("credits_count"),
    *_timestamps(),
)

# Ownership / cost sharing -----------------------------------------------------


def _ownership_table(
    name: str,
    *parents: tuple[str, str],
    extra: tuple[Column[object], ...] = (),
) -> Table:
    owned_column = parents[-1][0]
    return Table(
        name,
        metadata,
        _id(),
        *(_parent(column, table) for column, table in parents),
        _parent("user_id", "users"),
        *_texts("user_uuid"),
        *extra,
        *_timestamps(),
        UniqueConstraint(owned_column, "user_id"),
    )


manga_tome_owners_table = _ownership_table(
    "manga_manga_tomes_proprietaires",
    ("serie_id", "manga_series"),
    ("tome_id", "manga_tomes"),
)
adulte_game_owners_table = _ownership_table(
    "adulte_game_proprietaires",
    ("game_id", "adulte_game_games"),
    extra=(Column("prix", Float), Column("date_achat", Text), Column("platforms", Text)),
)
book_owners_table = _ownership_table(
    "book_proprietaires",
    ("book_id", "books"),
    extra=(Column("prix", Float), Column("date_achat", Text)),
)
subscription_owners_table = _ownership_table(
    "subscription_proprietaires",
    ("subscription_id", "subscriptions"),
)
purchase_owners_table = _ownership_table(
    "one_time_purchase_proprietaires",
    ("purchase_id", "one_time_purchases"),
)

# Private progress -------------------------------------------------------------


def _progress_table(name: str, column: str, parent: str, *extra: Column[object]) -> Table:
    return Table(
        name,
        metadata,
        _id(),
        _parent(column, parent),
        _parent("user_id", "users"),
        *extra,
        *_timestamps(),
        UniqueConstraint(column, "user_id"),
    )


manga_user_data_table = _progress_table(
    "manga_user_data",
    "serie_id",
    "manga_series",
    Column("statut_lecture", Text),
    Column("score", Float),
    Column("volumes_lus", Integer, server_default=text("0")),
    Column("notes_privees", Text),
)
anime_user_data_table = _progress_table(
    "anime_user_data",
    "anime_id",
    "anime_series",
    Column("statut_visionnage", Text),
    Column("score", Float),
    Column("episodes_vus", Integer, server_default=text("0")),
    Column("episode_progress", Text),
)
movie_user_data_table = _progress_table(
    "movie_user_data",
    "movie_id",
    "movies",
    Column("statut_visionnage", Text),
    Column("score", Float),
)
tv_show_user_data_table = _progress_table(
    "tv_show_user_data",
    "show_id",
    "tv_shows",
    Column("statut_visionnage", Text),
    Column("episode_progress", Text),
)
book_user_data_table = _progress_table(
    "book_user_data",
    "book_id",
    "books",
    Column("statut_lecture", Text),
    Column("score", Float),
)
adulte_game_user_data_table = _progress_table(
    "adulte_game_user_data",
    "game_id",
    "adulte_game_games",
    Column("statut_perso", Text),
    Column("chemin_executable", Text),
)
