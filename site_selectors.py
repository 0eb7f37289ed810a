# Selectors for the fantasy lobby as it renders today.
# Markup drifts between releases: readiness lists in settings.DEFAULT_CFG["readiness"]
# can be overridden from config.toml without touching code.

# Lobby / fixture list
TAB_SELECTOR          = "div[testid='{tab_id}']"
TAB_INACTIVE_CLASS    = "ft-tab-inactive"
LOGGED_IN_MARKER      = "div[testid='ft_Tabs_Upcoming']"
FIXTURE_CARD          = "div[id^='ft-fixture-card-new']"
FIXTURE_SERIES        = ".fixture-card-header"
FIXTURE_TEAM_A        = "span[testid^='team-a']"
FIXTURE_TEAM_B        = "span[testid^='team-b']"
FIXTURE_TEAM_LOGO     = "div#ft-team-badge .flag-containerNew img"
FIXTURE_MATCH_STATUS  = "div[testid^='match-status']"

STATUS_TABS = {
    "upcoming":  "ft_Tabs_Upcoming",
    "live":      "ft_Tabs_Live",
    "completed": "ft_Tabs_Completed",
}

# Shared match header (live detail + scoreboard)
POPUP_CLOSE           = ".close-button, .modal-close"
DETAIL_CONTAINER      = ".page_coninner_autoheight"
TEAM_NAME             = ".sc-headTeamInfo .sc-teamInfoName"
MATCH_TITLE           = ".sc-headTeamInfo .sc-match-title"

# Live match detail
SCOREBOOK_READY       = (".score-book", ".score-container", ".match-score")
BATSMAN_ROW           = ".batsmen .batsman"
BOWLER_ROW            = ".bowlers .bowler"
DELIVERY              = ".score-book .delivery"
SUMMARY_SCORE         = ".match-summary .score"
SUMMARY_OVERS         = ".match-summary .overs"
SUMMARY_RUN_RATE      = ".match-summary .run-rate"

# Contests
CONTESTS_PAGE_TEXT    = "Contests"
CONTEST_CARD_READY    = (
    'div[id^="ft-contest-card"]',
    'div[class*="contest-card"]',
    'div[testid*="contest-card"]',
)
CONTEST_CARD          = 'div[id^="ft-contest-card"]'
CONTEST_NAME          = ".contestRewampLeftHeader"
CONTEST_PRIZE         = '[testid^="newContestCardPrizeAmount"]'
CONTEST_ENTRY_FEE     = '[testid^="entry-fee"]'
CONTEST_WINNERS       = '[testid^="newContestnoOfWinners"]'
CONTEST_TEAMS_JOINED  = '[testid^="wc-ps-teams-joined-count"]'
CONTEST_PROGRESS      = ".progress-bar"

# Scoreboard
SCOREBOARD_SCORE      = ".text-black-50.small.text-center"
INNINGS_BANNER        = ".inning-banner"
INNINGS_CARD_CLASS    = "innings-card"
INNINGS_TEAM          = ".team-name"
INNINGS_SCORE         = ".inning-score .score"
INNINGS_RUN_RATE      = ".inning-run-rate"
INNINGS_EXTRAS        = ".row.header .col-2"
INNINGS_TOTAL         = ".row.total .col-5 span"
SCORE_TABLE           = ".score-table"
SCORE_ROW             = ".row:not(.header)"

# Roster builder
LOGIN_REQUIRED        = 'input[name="mobile"]'
PLAYER_TABS           = ".player-category-tabs"
PLAYER_TAB_ITEMS      = ".player-category-tabs .nav-item"
PLAYER_TAB            = '.player-category-tabs [data-filter="{category}"]'
PLAYER_BOX            = ".player-box"
PLAYER_IMG            = ".player-img img"
PLAYER_NAME           = ".player-name"
PLAYER_TEAM           = ".team-name"
PLAYER_CREDITS        = ".player-credits"
PLAYER_POINTS         = ".player-points"
PLAYER_SELECTED_BY    = ".selected-by"
PLAYER_RECENT         = ".recent-performance span"
