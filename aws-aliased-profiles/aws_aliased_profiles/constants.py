DIR_NAME = "aliased-profiles"
STATE_FILENAME = "state.json"
TEMPLATE_FILENAME = "config.tmpl"
AWS_CONFIG_FILENAME = "config"

# https://docs.aws.amazon.com/organizations/latest/APIReference/API_ListAccounts.html
MAX_RESULTS = 20

TAG_WORKERS = 1
ALIAS_WORKERS = 10
ALIAS_PACING_SECONDS = 1.0

ROLE_SESSION_NAME = "AliasedProfilesSession"

AWS_CONFIG_DELIMITER = "### ----- AWS Aliased Profiles -----"

DEFAULT_PROFILE_TEMPLATE = """\
{% macro profile_body() %}
cli_pager =
source_profile = default
{% if has_tag_key_value("environment", "staging") %}
role_arn = arn:aws:iam::{{ id }}:role/Staging
{% else %}
role_arn = arn:aws:iam::{{ id }}:role/Production
{% endif %}
{% endmacro %}
[profile {{ id }}]
{{ profile_body() }}
{% if alias %}
[profile {{ alias }}]
{{ profile_body() }}
{% endif %}
"""
