"""Fixed schema descriptions for every table a library store may contain."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .enums import EntityCategory, EntityType
from .schema import EntitySchema, ForeignKeyRef, compound, external_id, title_set

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


AUTHORITATIVE_SERIES_SOURCE: Final[str] = "nautiljon"

# Title variants shared by the Japanese media tables.
_JP_TITLES = (
    "titre",
    "titre_alternatif",
    "titre_original",
    "titre_romaji",
    "titre_natif",
    "titre_anglais",
    "titres_alternatifs",
)


def _cols(*names: str) -> frozenset[str]:
    return frozenset(names)


_USER = EntitySchema(
    entity_type=EntityType.USER,
    table="users",
    category=EntityCategory.USER,
    identity=(compound("name"),),
    mergeable=_cols("emoji", "color", "avatar_path"),
    fill_only=_cols("sync_uuid"),
)

_PURCHASE_SITE = EntitySchema(
    entity_type=EntityType.PURCHASE_SITE,
    table="purchase_sites",
    category=EntityCategory.CATALOG,
    identity=(compound("name"),),
    mergeable=_cols("url"),
)

_SERIES = EntitySchema(
    entity_type=EntityType.SERIES,
    table="manga_series",
    category=EntityCategory.CATALOG,
    identity=(external_id("mal_id"), external_id("anilist_id"), title_set(*_JP_TITLES)),
    foreign_keys=(
        ForeignKeyRef("user_id_ajout", EntityType.USER, required=False),
        ForeignKeyRef("mihon_user_id", EntityType.USER, required=False),
    ),
    mergeable=_cols(
        *_JP_TITLES,
        "mal_id",
        "anilist_id",
        "type_volume",
        "type_contenu",
        "couverture_url",
        "description",
        "statut_publication",
        "statut_publication_vf",
        "annee_publication",
        "annee_vf",
        "genres",
        "themes",
        "auteurs",
        "nb_volumes",
        "nb_volumes_vf",
        "nb_chapitres",
        "nb_chapitres_vf",
        "langue_originale",
        "demographie",
        "editeur",
        "editeur_vo",
        "serialization",
        "media_type",
        "rating",
        "score_mal",
        "rank_mal",
        "popularity_mal",
        "background",
        "relations",
        "nautiljon_url",
        "source_donnees",
    ),
    excluded=_cols(
        "statut",
        "statut_lecture",
        "score_utilisateur",
        "date_debut_lecture",
        "date_fin_lecture",
        "volumes_lus",
        "chapitres_lus",
        "tags",
        "notes_privees",
        "is_favorite",
        "is_hidden",
    ),
    provenance_column="source_donnees",
    authoritative_sources=(AUTHORITATIVE_SERIES_SOURCE,),
)

_ANIME = EntitySchema(
    entity_type=EntityType.ANIME,
    table="anime_series",
    category=EntityCategory.CATALOG,
    identity=(external_id("mal_id"), external_id("anilist_id"), title_set(*_JP_TITLES)),
    foreign_keys=(ForeignKeyRef("user_id_ajout", EntityType.USER, required=False),),
    mergeable=_cols(
        *_JP_TITLES,
        "mal_id",
        "anilist_id",
        "mal_url",
        "type",
        "source",
        "nb_episodes",
        "couverture_url",
        "description",
        "statut_diffusion",
        "en_cours_diffusion",
        "date_debut",
        "date_fin",
        "duree",
        "annee",
        "saison_diffusion",
        "genres",
        "themes",
        "demographics",
        "studios",
        "producteurs",
        "diffuseurs",
        "rating",
        "score",
        "rank_mal",
        "popularity_mal",
        "background",
        "franchise_name",
        "franchise_order",
        "source_import",
    ),
    excluded=_cols(
        "statut_visionnage",
        "score_utilisateur",
        "episodes_vus",
        "notes_privees",
        "is_favorite",
        "is_hidden",
    ),
)

_MOVIE = EntitySchema(
    entity_type=EntityType.MOVIE,
    table="movies",
    category=EntityCategory.CATALOG,
    identity=(external_id("tmdb_id"), external_id("imdb_id"), title_set("titre", "titre_original")),
    mergeable=_cols(
        "titre",
        "titre_original",
        "tmdb_id",
        "imdb_id",
        "synopsis",
        "date_sortie",
        "duree",
        "genres",
        "note_moyenne",
        "nb_votes",
        "poster_path",
        "backdrop_path",
        "statut",
        "budget",
        "revenus",
    ),
    excluded=_cols("statut_visionnage", "score_utilisateur", "date_visionnage", "notes_privees"),
)

_TV_SHOW = EntitySchema(
    entity_type=EntityType.TV_SHOW,
    table="tv_shows",
    category=EntityCategory.CATALOG,
    identity=(external_id("tmdb_id"), external_id("imdb_id"), title_set("titre", "titre_original")),
    mergeable=_cols(
        "titre",
        "titre_original",
        "tmdb_id",
        "imdb_id",
        "synopsis",
        "statut",
        "type",
        "nb_saisons",
        "nb_episodes",
        "date_premiere",
        "date_derniere",
        "genres",
        "reseaux",
        "note_moyenne",
        "poster_path",
        "backdrop_path",
    ),
    excluded=_cols("statut_visionnage", "score_utilisateur", "notes_privees"),
)

_GAME = EntitySchema(
    entity_type=EntityType.GAME,
    table="adulte_game_games",
    category=EntityCategory.CATALOG,
    identity=(
        external_id("f95_thread_id"),
        external_id("Lewdcorner_thread_id"),
        title_set("titre"),
    ),
    mergeable=_cols(
        "titre",
        "f95_thread_id",
        "Lewdcorner_thread_id",
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
        "maj_disponible",
    ),
    excluded=_cols(
        "statut_perso",
        "notes_privees",
        "chemin_executable",
        "derniere_session",
        "version_jouee",
    ),
)

_BOOK = EntitySchema(
    entity_type=EntityType.BOOK,
    table="books",
    category=EntityCategory.CATALOG,
    identity=(
        external_id("isbn13"),
        external_id("isbn"),
        compound("titre", "auteur"),
        title_set("titre", "titre_original"),
    ),
    mergeable=_cols(
        "titre",
        "titre_original",
        "auteur",
        "auteurs",
        "isbn",
        "isbn13",
        "editeur",
        "date_publication",
        "date_publication_originale",
        "nombre_pages",
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
        "score",
        "nb_votes",
        "rating",
        "prix_suggere",
        "devise",
    ),
    excluded=_cols("statut_lecture", "score_utilisateur", "date_lecture", "notes_privees"),
)

_SUBSCRIPTION = EntitySchema(
    entity_type=EntityType.SUBSCRIPTION,
    table="subscriptions",
    category=EntityCategory.CATALOG,
    identity=(compound("name", "type"),),
    mergeable=_cols(
        "price",
        "devise",
        "frequency",
        "start_date",
        "next_payment_date",
        "status",
    ),
    excluded=_cols("notes"),
)

_TOME = EntitySchema(
    entity_type=EntityType.TOME,
    table="manga_tomes",
    category=EntityCategory.SUB_ENTITY,
    identity=(compound("serie_id", "numero"),),
    foreign_keys=(ForeignKeyRef("serie_id", EntityType.SERIES),),
    mergeable=_cols("prix", "date_sortie", "date_achat", "couverture_url", "type_tome"),
)

_TV_SEASON = EntitySchema(
    entity_type=EntityType.TV_SEASON,
    table="tv_seasons",
    category=EntityCategory.SUB_ENTITY,
    identity=(compound("show_id", "numero"),),
    foreign_keys=(ForeignKeyRef("show_id", EntityType.TV_SHOW),),
    mergeable=_cols("tmdb_id", "titre", "synopsis", "date_premiere", "nb_episodes", "poster_path"),
)

_TV_EPISODE = EntitySchema(
    entity_type=EntityType.TV_EPISODE,
    table="tv_episodes",
    category=EntityCategory.SUB_ENTITY,
    identity=(
        external_id("tmdb_id"),
        compound("show_id", "saison_numero", "episode_numero"),
    ),
    foreign_keys=(
        ForeignKeyRef("show_id", EntityType.TV_SHOW),
        ForeignKeyRef("season_id", EntityType.TV_SEASON, required=False),
    ),
    mergeable=_cols("tmdb_id", "titre", "synopsis", "date_diffusion", "duree", "still_path"),
    excluded=_cols("vu", "date_visionnage"),
)

_PURCHASE = EntitySchema(
    entity_type=EntityType.PURCHASE,
    table="one_time_purchases",
    category=EntityCategory.SUB_ENTITY,
    identity=(compound("site_name", "purchase_date", "amount"),),
    foreign_keys=(ForeignKeyRef("site_id", EntityType.PURCHASE_SITE, required=False),),
    mergeable=_cols("devise", "credits_count"),
    excluded=_cols("notes"),
)


def _ownership(
    entity_type: EntityType,
    table: str,
    *parents: tuple[str, EntityType],
    mergeable: Iterable[str] = (),
) -> EntitySchema:
    owned_column = parents[-1][0]
    return EntitySchema(
        entity_type=entity_type,
        table=table,
        category=EntityCategory.OWNERSHIP,
        identity=(compound(owned_column, "user_id"),),
        foreign_keys=(
            *(ForeignKeyRef(column, parent) for column, parent in parents),
            ForeignKeyRef("user_id", EntityType.USER),
        ),
        mergeable=frozenset(mergeable),
        fill_only=_cols("user_uuid"),
    )


_TOME_OWNERSHIP = _ownership(
    EntityType.TOME_OWNERSHIP,
    "manga_manga_tomes_proprietaires",
    ("serie_id", EntityType.SERIES),
    ("tome_id", EntityType.TOME),
)
_GAME_OWNERSHIP = _ownership(
    EntityType.GAME_OWNERSHIP,
    "adulte_game_proprietaires",
    ("game_id", EntityType.GAME),
    mergeable=("prix", "date_achat", "platforms"),
)
_BOOK_OWNERSHIP = _ownership(
    EntityType.BOOK_OWNERSHIP,
    "book_proprietaires",
    ("book_id", EntityType.BOOK),
    mergeable=("prix", "date_achat"),
)
_SUBSCRIPTION_OWNERSHIP = _ownership(
    EntityType.SUBSCRIPTION_OWNERSHIP,
    "subscription_proprietaires",
    ("subscription_id", EntityType.SUBSCRIPTION),
)
_PURCHASE_OWNERSHIP = _ownership(
    EntityType.PURCHASE_OWNERSHIP,
    "one_time_purchase_proprietaires",
    ("purchase_id", EntityType.PURCHASE),
)


def _progress(entity_type: EntityType, table: str, column: str, parent: EntityType) -> EntitySchema:
    return EntitySchema(
        entity_type=entity_type,
        table=table,
        category=EntityCategory.USER_PROGRESS,
        identity=(compound(column, "user_id"),),
        foreign_keys=(ForeignKeyRef(column, parent), ForeignKeyRef("user_id", EntityType.USER)),
    )


_PROGRESS = (
    _progress(EntityType.SERIES_PROGRESS, "manga_user_data", "serie_id", EntityType.SERIES),
    _progress(EntityType.ANIME_PROGRESS, "anime_user_data", "anime_id", EntityType.ANIME),
    _progress(EntityType.MOVIE_PROGRESS, "movie_user_data", "movie_id", EntityType.MOVIE),
    _progress(EntityType.TV_SHOW_PROGRESS, "tv_show_user_data", "show_id", EntityType.TV_SHOW),
    _progress(EntityType.BOOK_PROGRESS, "book_user_data", "book_id", EntityType.BOOK),
    _progress(EntityType.GAME_PROGRESS, "adulte_game_user_data", "game_id", EntityType.GAME),
)

# Parents always precede their children.
MERGE_ORDER: Final[tuple[EntitySchema, ...]] = (
    _USER,
    _PURCHASE_SITE,
    _SERIES,
    _ANIME,
    _MOVIE,
    _TV_SHOW,
    _GAME,
    _BOOK,
    _SUBSCRIPTION,
    _TOME,
    _TV_SEASON,
    _TV_EPISODE,
    _PURCHASE,
    _TOME_OWNERSHIP,
    _GAME_OWNERSHIP,
    _BOOK_OWNERSHIP,
    _SUBSCRIPTION_OWNERSHIP,
    _PURCHASE_OWNERSHIP,
)

CATALOG: Final[Mapping[EntityType, EntitySchema]] = MappingProxyType(
    {schema.entity_type: schema for schema in (*MERGE_ORDER, *_PROGRESS)}
)


def schema_for(entity_type: EntityType) -> EntitySchema:
    return CATALOG[entity_type]


def schema_for_table(table: str) -> EntitySchema | None:
    for schema in CATALOG.values():
        if schema.table == table:
            return schema
    return None


def progress_schemas() -> tuple[EntitySchema, ...]:
    return _PROGRESS
